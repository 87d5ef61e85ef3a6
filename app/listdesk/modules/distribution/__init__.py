"""
List distribution module.

Scope:
- Upload CSV/XLS/XLSX contact lists and split them round-robin across agents
- List, filter and delete distributed items (per item or per uploaded file)
- Per-agent distribution summary

Hard constraints:
- One upload is all-or-nothing; the temporary upload file never outlives the request
- Items are immutable once written
"""
