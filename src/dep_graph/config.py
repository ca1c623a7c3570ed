"""
Database Object Dependency Graph Scanner - Configuration
Copyright (c) 2025 Dmitry Solonnikov
Licensed under MIT License - see LICENSE file for details
"""
import configparser
from typing import Any, Dict, Optional

# Graph building settings
GRAPH_CONFIG = {
    'not_found_ddl': 'NOT FOUND',                          # DDL of targets missing in the catalog
    'zero_uuid': '00000000-0000-0000-0000-000000000000',   # Atomic-less databases report this uuid
    'external_id_prefix': 'a',
    'edge_id_prefix': 'e',
}

# Engine names with special handling
ENGINE_NAMES = {
    'materialized_view': 'MaterializedView',
    'view': 'View',
}

# Edge labels
EDGE_LABELS = {
    'sink_to': 'Sink To',
    'push_to': 'Push To',
    'select_from': 'Select From',
    'load_from': 'Load From',
}

# Web adapter defaults
WEB_CONFIG = {
    'host': '127.0.0.1',
    'port': 5000,
    'debug': False,
    'log_level': 'INFO',
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load web adapter settings from an INI file.

    Args:
        config_path: Path to the configuration file, defaults only if None

    Returns:
        Dictionary with host, port, debug and log_level
    """
    config = dict(WEB_CONFIG)
    if not config_path:
        return config

    parser = configparser.ConfigParser()
    parser.read(config_path)

    if parser.has_section('web'):
        web = parser['web']
        config['host'] = web.get('host', config['host'])
        config['port'] = web.getint('port', config['port'])
        config['debug'] = web.getboolean('debug', config['debug'])
    if parser.has_section('logging'):
        config['log_level'] = parser['logging'].get('level', config['log_level']).upper()

    return config
