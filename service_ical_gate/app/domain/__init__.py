"""
Domain logic for the iCal Gate.

Includes caller-address classification, credential extraction and the
authorization gate that combines them with the token cache.
"""
