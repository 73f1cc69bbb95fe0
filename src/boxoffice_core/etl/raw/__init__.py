"""Raw (Bronze) layer - Documents as delivered.

Data directory mapping:
    data/a_raw/excel/ -> weekly sales report spreadsheets (FYxx/ subfolders)
    data/a_raw/pdf/   -> vendor performance sales summaries
"""
