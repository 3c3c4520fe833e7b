from .reader_service import ReaderService, get_reader_service, set_reader_service

__all__ = ['ReaderService', 'get_reader_service', 'set_reader_service']
