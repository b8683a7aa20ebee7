"""
RevComps free entry automation.
Enters every free competition listing the account does not already hold.
"""

__version__ = "0.1.0"
