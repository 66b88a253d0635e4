"""
Weekly scrob chart.

Counts scrobs per day over the trailing week and renders them as an SVG bar
chart. SVG elements are plain dicts: `tag`, optional `children` (a string or a
list of elements) and any other key as an attribute.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from .models import BarDatum, ScrobRecord
from .report import start_of_day

Element = Dict[str, Any]

# Independent of the process locale
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

CHART_WIDTH = 600
CHART_HEIGHT = 300
BAR_PAD = 5
LABEL_HEIGHT = 25
LABEL_FONT_SIZE = 20


def week_start(now: datetime) -> datetime:
    """Local midnight six days before now, so the window spans seven days."""
    return start_of_day(now - timedelta(days=6))


def weekly_counts(records: Iterable[ScrobRecord], now: datetime) -> List[BarDatum]:
    """One datum per day of the trailing week, oldest first, missing days at 0."""
    start = week_start(now)
    since, until = start.timestamp(), now.timestamp()

    counts: Dict[str, int] = {}
    for record in records:
        if since <= record.at <= until:
            label = WEEKDAY_LABELS[record.played_at.weekday()]
            counts[label] = counts.get(label, 0) + 1

    data = []
    day = start.date()
    while day <= now.date():
        label = WEEKDAY_LABELS[day.weekday()]
        data.append(BarDatum(label=label, value=counts.get(label, 0)))
        day += timedelta(days=1)
    return data


def translate(children: List[Element], x: float, y: float) -> Element:
    return {"tag": "g", "transform": f"translate({_num(x)} {_num(y)})", "children": children}


def make_bar_chart(
    data: List[BarDatum],
    width: float,
    height: float,
    bar_pad: float = 0,
    pad: Optional[float] = None,
) -> Element:
    """
    Lay out a bar chart with labels underneath.

    Bar heights are relative to the largest value; when every value is 0
    all bars are 0 high.
    """
    if pad is None:
        pad = height * 0.05

    plot_width = width - pad * 2
    plot_height = height - LABEL_HEIGHT - pad * 2
    bar_width = plot_width / len(data) - bar_pad if data else 0
    y_max = max((datum.value for datum in data), default=0)

    bars = []
    labels = []
    for idx, datum in enumerate(data):
        bar_height = datum.value / y_max * plot_height if y_max else 0
        x = idx * (bar_width + bar_pad)
        bars.append({
            "tag": "rect",
            "fill": "#000",
            "width": bar_width,
            "height": bar_height,
            "x": x,
            "y": plot_height - bar_height,
        })
        labels.append({
            "tag": "text",
            "children": datum.label,
            "x": x + bar_width / 2,
            "y": 0,
            "font-size": LABEL_FONT_SIZE,
            "dominant-baseline": "middle",
            "text-anchor": "middle",
            "fill": "#000",
        })

    return {
        "tag": "g",
        "children": [
            translate(bars, pad, pad),
            translate(labels, pad, pad + plot_height + LABEL_HEIGHT),
        ],
    }


def _num(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _compile_element(element: Element, parts: List[str], depth: int):
    indent = " " * depth
    attrs = {key: val for key, val in element.items() if key not in ("tag", "children")}
    children = element.get("children")

    parts.extend((indent, "<", element["tag"]))
    for key, val in attrs.items():
        parts.extend((" ", key, '="', _num(val), '"'))

    if children:
        parts.append(">\n")
        if isinstance(children, str):
            parts.extend((indent, "  ", children, "\n"))
        else:
            for child in children:
                _compile_element(child, parts, depth + 1)
        parts.extend((indent, "</", element["tag"], ">\n"))
    else:
        parts.append(" />\n")


def compile_svg(element: Element) -> str:
    """Serialize an element tree to SVG markup."""
    parts: List[str] = []
    _compile_element(element, parts, 0)
    return "".join(parts)


def weekly_chart(records: Iterable[ScrobRecord], now: datetime) -> str:
    """Render the SVG printed by `mutil report-week-chart`."""
    svg = {
        "tag": "svg",
        "viewBox": f"0 0 {CHART_WIDTH} {CHART_HEIGHT}",
        "xmlns": "http://www.w3.org/2000/svg",
        "children": [
            make_bar_chart(
                weekly_counts(records, now),
                width=CHART_WIDTH,
                height=CHART_HEIGHT,
                bar_pad=BAR_PAD,
            )
        ],
    }
    return compile_svg(svg)
