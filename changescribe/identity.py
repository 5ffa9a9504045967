"""
CHANGESCRIBE Identity

Name, version and banner shown by the CLI.
"""

__codename__ = "CHANGESCRIBE"
__version__ = "0.3.0"
__tagline__ = "Say why. Show what. Ship it."

BANNER = r"""
  ___ _                          ___         _ _
 / __| |_  __ _ _ _  __ _ ___   / __| __ _ _(_) |__  ___
| (__| ' \/ _` | ' \/ _` / -_)  \__ \/ _| '_| | '_ \/ -_)
 \___|_||_\__,_|_||_\__, \___|  |___/\__|_| |_|_.__/\___|
                    |___/
"""
