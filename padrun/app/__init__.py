"""
padrun HTTP host (FastAPI).
"""
