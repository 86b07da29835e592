import calendar
from datetime import date
from datetime import datetime


#============================================
def month_window(year: int, month: int) -> tuple[date, date]:
	"""
	Return the first and last day of one calendar month.
	"""
	last_day = calendar.monthrange(year, month)[1]
	return date(year, month, 1), date(year, month, last_day)


#============================================
def previous_month(year: int, month: int) -> tuple[int, int]:
	"""
	Return year and month of the calendar month before the given one.
	"""
	if month == 1:
		return year - 1, 12
	return year, month - 1


#============================================
def iter_month_windows(now: datetime, stop_date: datetime, lower_bound: datetime | None = None):
	"""
	Yield (first_day, last_day) month windows from now back toward the bounds.

	The current month is always yielded. Walking stops once the next
	window's last day would precede stop_date or lower_bound.

	Args:
		now: Reference instant for the first window.
		stop_date: Configured lower bound for the source.
		lower_bound: Optional cursor-derived lower bound.
	"""
	year, month = now.year, now.month
	stop_day = stop_date.date()
	lower_day = lower_bound.date() if lower_bound is not None else None
	while True:
		yield month_window(year, month)
		year, month = previous_month(year, month)
		_, last_day = month_window(year, month)
		if last_day < stop_day:
			return
		if (lower_day is not None) and (last_day < lower_day):
			return


#============================================
def format_range(window: tuple[date, date]) -> str:
	"""
	Format a window as the YYYY-MM-DD..YYYY-MM-DD search qualifier value.
	"""
	first_day, last_day = window
	return f"{first_day.isoformat()}..{last_day.isoformat()}"
