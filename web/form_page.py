"""HTML input form for the talk calendar generator."""
from datetime import datetime
from html import escape
from string import Template
from typing import Optional

from processor.time_normalizer import default_form_times

PAGE_TITLE = 'Talk Calendar Generator'

_PAGE = Template("""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>$page_title</title>
</head>
<body>
  <h1>$page_title</h1>
  <form method="post" action="$action" enctype="multipart/form-data">
    <label>Title <input type="text" name="title" required></label>
    <label>Speaker <input type="text" name="speaker"></label>
    <label>Affiliation <input type="text" name="affiliation"></label>
    <label>Host <input type="text" name="host"></label>
    <label>Start <input type="datetime-local" name="starttime" value="$start" required></label>
    <label>End <input type="datetime-local" name="endtime" value="$end"></label>
    <label>Venue <input type="text" name="venue"></label>
    <label>Abstract <textarea name="description" rows="8"></textarea></label>
    <label>Link <input type="url" name="remark"></label>
    <label>Slides (PDF) <input type="file" name="pdfFile" accept="application/pdf"></label>
    <button type="submit">Generate iCal</button>
  </form>
</body>
</html>
""")


def render_form(
    now: Optional[datetime] = None,
    page_title: str = PAGE_TITLE,
    action: str = 'generate-ical'
) -> str:
    """
    Render the input form with start and end pre-filled one hour apart.

    Args:
        now: Current instant used for the default times
        page_title: Heading and document title
        action: Form submission target

    Returns:
        HTML page as a string
    """
    start, end = default_form_times(now)
    return _PAGE.substitute(
        page_title=escape(page_title),
        action=escape(action),
        start=escape(start),
        end=escape(end)
    )
