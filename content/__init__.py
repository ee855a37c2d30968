"""content/ -- Page content domain and persistence for PageDesk.

Layer rule: content/ imports only stdlib + third-party libraries.
It does NOT import from api/, web/, or auth/.
"""
