"""
Result store service for implicit-association bias test submissions.
"""
