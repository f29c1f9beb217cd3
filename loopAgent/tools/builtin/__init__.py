"""Builtin tools: ask_human, final_answer and managed-agent delegation.

Import the tool modules directly; this package stays import-free so the step
loop can load final_answer without pulling in delegation.
"""
