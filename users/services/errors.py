class ErrorCode:
    VALIDATION = 'VALIDATION'
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    NOT_FOUND = 'NOT_FOUND'
    INVALID_STATE = 'INVALID_STATE'
    CONFLICT = 'CONFLICT'
    SERVER_ERROR = 'SERVER_ERROR'


def failure(code, message):
    return {'success': False, 'error': code, 'message': message}
