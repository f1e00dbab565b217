"""
Instance discovery: windowed chain scanning and template matching.
"""
