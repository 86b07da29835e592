from datetime import datetime

import rich.console


RICH_CONSOLE = rich.console.Console(stderr=True)


#============================================
def pick_style(message: str) -> str:
	"""
	Choose a console style from message keywords.
	"""
	lower = message.lower()
	if ("failed" in lower) or ("error" in lower):
		return "bold red"
	if ("rate limit" in lower) or ("skipping" in lower) or ("not enabled" in lower):
		return "yellow"
	if ("wrote " in lower) or ("collected" in lower):
		return "green"
	return "cyan"


#============================================
def make_log_step(scope: str, console: rich.console.Console | None = None):
	"""
	Build a log function that prints one timestamped progress line per call.
	"""
	target = console or RICH_CONSOLE

	def log_step(message: str) -> None:
		now_text = datetime.now().strftime("%H:%M:%S")
		line = f"[{scope} {now_text}] {message}"
		target.print(line, style=pick_style(message), markup=False, highlight=False)

	return log_step


#============================================
def emit(log_fn, message: str) -> None:
	"""
	Emit one log line when a logger is configured.
	"""
	if log_fn is not None:
		log_fn(message)
