
import logging

import streamlit as st

from config import get_config
from dashboard import ThermalAnalysisUI, VPDDashboardUI, VPDOptimizerUI


# -----------------------
# Logging
# -----------------------

def setup_logging():
    cfg = get_config()
    logging.basicConfig(
        level=getattr(logging, cfg.LOGGING_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# -----------------------
# Global styling
# -----------------------

def inject_css():
    st.markdown(
        """
        <style>
        @import url('https://fonts.googleapis.com/css2?family=Rubik:wght@300;400;500;600;700;800&display=swap');

        :root {
            --vpd-green: #45C96B;
            --vpd-blue: #3B82F6;
            --vpd-yellow: #FFD750;
            --vpd-red: #ED695D;
            --vpd-dark: #111111;
        }

        .stApp {
            background: #ffffff;
            font-family: "Rubik", system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        }

        h1, h2, h3, h4 {
            color: #111111;
        }

        .block-container {
            max-width: 1250px;
            padding-top: 1.5rem;
            padding-bottom: 3rem;
        }

        [data-testid="stSidebar"] {
            background: #F5F7FB;
            color: #111827;
            border-right: 1px solid #E5E7EB;
        }

        .vpd-sidebar-title {
            font-size: 1.1rem;
            font-weight: 800;
            letter-spacing: 0.08em;
            text-transform: uppercase;
            color: #111827;
            margin-bottom: 0.15rem;
        }
        .vpd-sidebar-subtitle {
            font-size: 0.8rem;
            color: #4B5563;
            margin-bottom: 0.9rem;
        }

        /* Metric cards */
        [data-testid="stMetricValue"] {
            font-weight: 700;
        }

        @media (max-width: 768px) {
            .block-container {
                padding-top: 0.5rem;
            }
        }

        </style>
        """,
        unsafe_allow_html=True,
    )


# -----------------------
# Sidebar navigation
# -----------------------

def sidebar_nav():
    with st.sidebar:
        st.markdown(
            '<div class="vpd-sidebar-title" style="text-align:center; margin-top:10px;">VPD MONITOR</div>',
            unsafe_allow_html=True,
        )
        st.markdown(
            '<div class="vpd-sidebar-subtitle" style="text-align:center;">Island climate against crop targets.</div>',
            unsafe_allow_html=True,
        )

        st.markdown("---")

        section = st.radio(
            "Sections",
            [
                "Dashboard",
                "Thermal analysis",
                "Optimizer",
            ],
            index=0,
        )

        st.markdown("---")
        st.caption("Crop and week assignments are saved per sector.")

    return section


# -----------------------
# Main app
# -----------------------

def main():
    st.set_page_config(page_title="VPD Monitor", layout="wide")
    setup_logging()
    inject_css()

    section = sidebar_nav()

    if section == "Dashboard":
        VPDDashboardUI.render()
    elif section == "Thermal analysis":
        ThermalAnalysisUI.render()
    elif section == "Optimizer":
        VPDOptimizerUI.render()
    else:
        VPDDashboardUI.render()


if __name__ == "__main__":
    main()
