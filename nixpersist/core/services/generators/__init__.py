"""
Generators — render configuration fragments from mechanism params.

Each generator module exposes a ``render()`` function (rsyslog has one
per technique) that validates its params and returns a ``Fragment``.
Rendering is pure: no I/O, same input → byte-identical output.
"""
