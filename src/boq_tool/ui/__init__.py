"""UI subpackage - Streamlit application."""
