"""core/ -- Configuration kernel for sessionkeep.

Layer rule: core/ imports only stdlib + third-party libraries. auth/ imports
from core/, never the other way around.
"""
