def _positive_int(value, default, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def get_paging(request, default_per_page=20, max_per_page=100):
    page = _positive_int(request.GET.get('page'), 1)
    per_page = _positive_int(request.GET.get('per_page'), default_per_page, max_per_page)
    return page, per_page
