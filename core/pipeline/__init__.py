"""
Thesis Research Pipeline

From an investment thesis to ranked, verdicted opportunities:
discovery, enrichment, per-opportunity analysis, optional debate and an
aggregate verdict, reported as phase events.
"""
