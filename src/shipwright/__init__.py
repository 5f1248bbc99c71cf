"""
Shipwright - build, sign and republish an upstream source tree.

Pipeline: SourceSync -> Sanitizer -> Compiler -> Packager -> Signer -> Publisher
"""

__version__ = "0.1.0"
