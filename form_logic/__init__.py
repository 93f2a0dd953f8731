"""
Form logic engine.

Evaluates conditional rules for dynamic forms. See ``form_logic.rules``.
"""
