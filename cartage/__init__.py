"""Repeatable release packages for server-side applications.

`cartage` builds a package from the files listed in `Manifest.txt`, vendors
dependencies through plug-ins, and writes release metadata next to the
package.
"""

__version__ = "2.0.0"
