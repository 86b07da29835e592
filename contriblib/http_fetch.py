import requests

from contriblib import console_log


DEFAULT_TIMEOUT_SECONDS = 120
USER_AGENT = "contribution-aggregator/1.0"


#============================================
class HttpFetchError(RuntimeError):
	"""
	Raised when one HTTP request fails or returns a non-success status.
	"""


#============================================
class HttpClient:
	"""
	Thin requests.Session wrapper shared by the non-forge adapters.
	"""

	def __init__(self, timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS, log_fn=None, session=None):
		self.timeout_seconds = timeout_seconds
		self.log_fn = log_fn
		self.session = session or requests.Session()
		self.session.headers.update({"User-Agent": USER_AGENT})
		self._request_count = 0

	#============================================
	def _get(self, url: str, params: dict | None):
		"""
		Issue one GET and return the response or raise HttpFetchError.
		"""
		self._request_count += 1
		console_log.emit(self.log_fn, f"GET {url} {params or ''}".rstrip())
		try:
			response = self.session.get(url, params=params, timeout=self.timeout_seconds)
			response.raise_for_status()
		except requests.RequestException as error:
			raise HttpFetchError(f"GET {url} failed: {error}") from error
		return response

	#============================================
	def get_json(self, url: str, params: dict | None = None):
		"""
		Fetch one URL and decode its JSON body.
		"""
		response = self._get(url, params)
		try:
			return response.json()
		except ValueError as error:
			raise HttpFetchError(f"GET {url} returned invalid JSON: {error}") from error

	#============================================
	def get_text(self, url: str, params: dict | None = None) -> str:
		"""
		Fetch one URL and return its decoded body text.
		"""
		return self._get(url, params).text

	#============================================
	def request_count(self) -> int:
		return self._request_count
