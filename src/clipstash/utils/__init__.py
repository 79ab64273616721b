from clipstash.utils.config import Settings, default_data_dir, save_setting
from clipstash.utils.rwlock import ReadWriteLock

__all__ = [
    'Settings',
    'default_data_dir',
    'save_setting',
    'ReadWriteLock',
]
