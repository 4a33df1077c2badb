# dbxl/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'export_dir': None,               # overrides the engine's secure_file_priv directory
    'temp_file_prefix': 'tmp_',
    'delimited_suffix': '.csv',
    'spreadsheet_suffix': '.xlsx',
    'native_converter': None,         # path to csv2xlsx; searched on PATH when unset
    'native_converter_timeout': None, # seconds, None waits forever
    'column_width_sample': 15,        # rows used to size spreadsheet columns
    'stale_export_hours': 24,
    'logging': {
        'directory': './logs',
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'console': True,
    }
}
