"""
Core domain: models, errors, schema contract and validation.
"""
