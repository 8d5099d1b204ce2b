"""Launch with ``streamlit run main.py``."""

from delivery_reports.main import main

main()
