"""Storage server for encrypted backup blobs."""

NAME = "safestore"
VERSION = "0.1.0"
