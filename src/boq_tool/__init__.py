"""
BOQ Tool Package

Document extraction and re-pricing for Bills of Quantities.
Extracts BOQ line items from uploaded PDFs/images, re-prices them with
margin / freight / customs / installation adjustments and exports to CSV,
Excel and PDF.
"""

__version__ = "1.0.0"
