"""Deck colours and the Plotly template shared by every chart."""

import plotly.graph_objects as go
import plotly.io as pio

TEMPLATE_NAME = "bayes_talk"

CONTROL_COLOR = '#636EFA'
TREATMENT_COLOR = '#00CC96'
PRIOR_COLOR = '#FFA15A'
UPLIFT_COLOR = '#AB63FA'
THRESHOLD_COLOR = '#EF553B'
NEUTRAL_COLOR = '#7F7F7F'

PRIOR_PALETTE = ['#FFA15A', '#19D3F3', '#FF6692', '#B6E880', '#FF97FF', '#FECB52']

FONT_FAMILY = "Source Sans Pro, Helvetica, Arial, sans-serif"
TICK_SIZE = 16
AXIS_TITLE_SIZE = 20
TITLE_SIZE = 26


def rgba(hex_color: str, alpha: float) -> str:
    """Convert '#RRGGBB' to an rgba() string for fills."""
    hex_color = hex_color.lstrip('#')
    if len(hex_color) != 6:
        raise ValueError(f"Expected a #RRGGBB colour, got {hex_color!r}")
    r, g, b = (int(hex_color[i:i + 2], 16) for i in (0, 2, 4))
    return f"rgba({r}, {g}, {b}, {alpha})"


def register_template() -> str:
    """Register the deck template and make it the Plotly default."""
    template = go.layout.Template(pio.templates["plotly_white"])
    template.layout.font = dict(family=FONT_FAMILY, size=TICK_SIZE)
    template.layout.title = dict(font=dict(size=TITLE_SIZE), x=0.02, xanchor='left')
    template.layout.xaxis.title.font = dict(size=AXIS_TITLE_SIZE)
    template.layout.yaxis.title.font = dict(size=AXIS_TITLE_SIZE)
    template.layout.colorway = [CONTROL_COLOR, TREATMENT_COLOR, PRIOR_COLOR, UPLIFT_COLOR, THRESHOLD_COLOR]
    template.layout.margin = dict(l=70, r=30, t=80, b=60)
    template.layout.legend = dict(font=dict(size=TICK_SIZE))

    pio.templates[TEMPLATE_NAME] = template
    pio.templates.default = TEMPLATE_NAME
    return TEMPLATE_NAME
