"""
Wrappers around brms functions, grouped by topic.

Import them through `brmskit.brms`.
"""
