"""tracker/ -- Projects, tasks, and the ownership rules that scope them.

Layer rule: tracker/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/; callers pass a plain user id.
"""
