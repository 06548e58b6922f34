"""
Bayesian A/B Testing: the talk.

Run with `streamlit run app.py`. The sidebar switches between the slide deck
and a live demo where the audience can suggest their own numbers.
"""

import streamlit as st
import structlog

from bayes_talk import charts
from bayes_talk.bayes import ExperimentData, VariantCounts, compute_bayesian_analysis
from bayes_talk.config import get_settings
from bayes_talk.logs import configure_logging
from bayes_talk.priors import BetaPrior
from bayes_talk.slides import Slide, build_deck

logger = structlog.get_logger(__name__)


@st.cache_resource
def load_deck():
    """Build the deck once per server; slide charts cache their simulations."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return build_deck(settings)


# =============================================================================
# Streamlit App
# =============================================================================

def main():
    st.set_page_config(
        page_title="Bayesian A/B Testing",
        page_icon="🎲",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    try:
        deck = load_deck()
    except ValueError as e:
        st.error(f"❌ Invalid settings: {e}")
        return

    st.sidebar.title("🎲 Bayesian A/B Testing")
    mode = st.sidebar.radio("Mode", ["Presentation", "Live demo"], horizontal=True)

    if mode == "Presentation":
        presentation(deck)
    else:
        live_demo()


def presentation(deck):
    """Slide navigation: sidebar table of contents plus previous/next buttons."""

    if "slide_index" not in st.session_state:
        st.session_state.slide_index = 0

    titles = [f"{i + 1}. {slide.title}" for i, slide in enumerate(deck)]
    st.sidebar.radio(
        "Slides",
        range(len(deck)),
        format_func=lambda i: titles[i],
        key="slide_index",
    )

    slide = deck[st.session_state.slide_index]
    render_slide(slide)

    st.divider()
    col_prev, col_counter, col_next = st.columns([1, 2, 1])

    with col_prev:
        st.button(
            "⬅ Previous",
            disabled=st.session_state.slide_index == 0,
            on_click=_step,
            args=(-1, len(deck)),
            use_container_width=True,
        )
    with col_counter:
        st.caption(f"Slide {st.session_state.slide_index + 1} of {len(deck)}")
    with col_next:
        st.button(
            "Next ➡",
            disabled=st.session_state.slide_index == len(deck) - 1,
            on_click=_step,
            args=(1, len(deck)),
            use_container_width=True,
        )


def _step(delta: int, n_slides: int):
    st.session_state.slide_index = min(max(st.session_state.slide_index + delta, 0), n_slides - 1)


def render_slide(slide: Slide):
    st.title(slide.title)

    if slide.chart is None and slide.image is None:
        st.markdown(slide.body)
    else:
        col_text, col_visual = st.columns([2, 3])
        with col_text:
            st.markdown(slide.body)
        with col_visual:
            if slide.image is not None:
                st.image(str(slide.image), use_container_width=True)
            if slide.chart is not None:
                try:
                    with st.spinner("Simulating..."):
                        fig = slide.chart()
                except ValueError as e:
                    logger.error("chart_failed", slide=slide.key, error=str(e))
                    st.error(f"❌ {e}")
                else:
                    st.plotly_chart(fig, use_container_width=True)

    if slide.notes:
        with st.expander("🗒️ Speaker notes"):
            st.markdown(slide.notes)

    logger.debug("slide_rendered", slide=slide.key)


def live_demo():
    """Analyze numbers suggested by the audience."""

    settings = get_settings()

    st.title("🧪 Live Demo")
    st.markdown("""
    **Shout out some numbers.**

    Enter clicks and sessions for each button and watch the posteriors react.
    """)

    st.divider()

    col_ctrl, col_treat = st.columns(2)

    with col_ctrl:
        st.subheader("🔵 Control")

        control_sessions = st.number_input(
            "Sessions",
            min_value=1,
            value=5000,
            step=100,
            key="demo_control_sessions",
            help="Number of sessions that saw the control button"
        )
        control_clicked = st.number_input(
            "Clicks",
            min_value=0,
            value=425,
            step=10,
            key="demo_control_clicked",
            help="Number of sessions that clicked the control button"
        )

    with col_treat:
        st.subheader("🟢 Treatment")

        treatment_sessions = st.number_input(
            "Sessions",
            min_value=1,
            value=5000,
            step=100,
            key="demo_treatment_sessions",
            help="Number of sessions that saw the treatment button"
        )
        treatment_clicked = st.number_input(
            "Clicks",
            min_value=0,
            value=480,
            step=10,
            key="demo_treatment_clicked",
            help="Number of sessions that clicked the treatment button"
        )

    with st.expander("🔧 Prior"):
        st.caption("Beta(shape1, shape2) behaves like shape1 clicks and shape2 non-clicks seen before the test.")
        col_prior1, col_prior2 = st.columns(2)
        with col_prior1:
            prior_shape1 = st.slider("Prior shape1", min_value=0.1, max_value=100.0, value=1.0, step=0.1)
        with col_prior2:
            prior_shape2 = st.slider("Prior shape2", min_value=0.1, max_value=1000.0, value=1.0, step=0.1)

    try:
        data = ExperimentData(
            control=VariantCounts(int(control_clicked), int(control_sessions)),
            treatment=VariantCounts(int(treatment_clicked), int(treatment_sessions)),
        )
        prior = BetaPrior(prior_shape1, prior_shape2)
    except ValueError as e:
        st.error(f"❌ {e}")
        return

    results = compute_bayesian_analysis(
        data=data,
        prior=prior,
        n_samples=settings.n_samples,
        credible_level=settings.credible_level,
        seed=settings.seed,
    )

    st.header("📈 Results")

    col1, col2, col3, col4 = st.columns(4)

    with col1:
        st.metric(
            label="P(Treatment > Control)",
            value=f"{results.prob_treatment_better:.1%}",
            help="Share of Monte Carlo draws where treatment has the higher CTR"
        )

    with col2:
        st.metric(
            label="Expected Uplift",
            value=f"{results.expected_uplift:+.2%}",
            delta=f"Observed: {data.observed_uplift:+.2%}",
        )

    with col3:
        lower, upper = results.uplift_ci
        st.metric(
            label=f"{results.credible_level:.0%} Credible Interval",
            value=f"[{lower:+.1%}, {upper:+.1%}]",
        )

    with col4:
        if results.prob_treatment_better >= settings.win_threshold:
            recommendation = "✅ Ship It"
        elif results.prob_treatment_better <= 1 - settings.win_threshold:
            recommendation = "❌ Don't Ship"
        else:
            recommendation = "⏳ Keep Testing"

        st.metric(
            label="Recommendation",
            value=recommendation,
            help=f"Based on a {settings.win_threshold:.0%} probability threshold"
        )

    st.divider()

    col_left, col_right = st.columns(2)

    with col_left:
        st.plotly_chart(charts.create_posterior_plot(results, data), use_container_width=True)

    with col_right:
        st.plotly_chart(charts.create_monte_carlo_plot(results), use_container_width=True)

    col_uplift, col_risk = st.columns([3, 2])

    with col_uplift:
        st.plotly_chart(charts.create_uplift_distribution_plot(results), use_container_width=True)

    with col_risk:
        st.plotly_chart(charts.create_risk_plot(results), use_container_width=True)


if __name__ == "__main__":
    main()
