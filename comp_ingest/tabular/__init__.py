from .decoder import DecodedTable, InvalidFormatError, UploadRejectedError, decode_upload, detect_format

__all__ = ["DecodedTable", "InvalidFormatError", "UploadRejectedError", "decode_upload", "detect_format"]
