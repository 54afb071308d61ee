"""
Derived views: dashboard counters, calendar marks, task and infrastructure
lists, maintenance report. Pure functions of store records.
"""
