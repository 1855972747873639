from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from stockwatch.errors import (
    ForbiddenError,
    QuoteNetworkError,
    QuoteServiceError,
    RateLimitedError,
    SymbolNotFoundError,
)
from stockwatch.schemas.watchlist import AddSymbolRequest
from stockwatch.services.watchlist_view import DEFAULT_SORT_OPTION, project_watchlist

router = APIRouter()


def _proxy_error(exc: QuoteServiceError, what: str) -> JSONResponse:
    # proxy routes answer {"error": message}, not FastAPI's {"detail": ...}
    if isinstance(exc, ForbiddenError):
        status_code, message = 403, 'Access Forbidden: Check your API key or permissions.'
    elif isinstance(exc, RateLimitedError):
        status_code, message = 429, 'Rate limit exceeded. Please try again later.'
    elif isinstance(exc, SymbolNotFoundError):
        status_code, message = 404, f'No {what} found.'
    elif isinstance(exc, QuoteNetworkError) or exc.status_code is None:
        status_code, message = 500, f'An internal error occurred while fetching {what}.'
    else:
        status_code, message = exc.status_code, f'Failed to fetch {what}. Status: {exc.status_code}'
    return JSONResponse(content={'error': message}, status_code=status_code)


@router.get('/quote/{symbol}')
def get_quote(symbol: str, request: Request):
    client = request.app.state.quote_client
    try:
        quote = client.get_quote(symbol.strip().upper())
    except QuoteServiceError as exc:
        print(f"[PROXY][quote_error] symbol={symbol} kind={exc.kind} status={exc.status_code}", flush=True)
        return _proxy_error(exc, f'stock data for {symbol}')
    return quote.model_dump(by_alias=True)


@router.get('/search')
def search_symbols(request: Request, query: str = Query(min_length=1)):
    client = request.app.state.quote_client
    try:
        matches = client.search_symbols(query)
    except QuoteServiceError as exc:
        print(f"[PROXY][search_error] query={query} kind={exc.kind} status={exc.status_code}", flush=True)
        return _proxy_error(exc, 'stock symbol suggestions')
    return [m.model_dump() for m in matches]


@router.get('/watchlist')
async def get_watchlist(
    request: Request,
    sort: str = DEFAULT_SORT_OPTION,
    filter_text: str = Query(default='', alias='filter'),
):
    controller = request.app.state.refresh_controller
    rows = project_watchlist(request.app.state.watchlist.entries(), sort, filter_text)
    return {
        **controller.status(),
        'entries': [row.model_dump(by_alias=True) for row in rows],
    }


@router.get('/watchlist/refresh')
async def get_refresh_status(request: Request):
    return request.app.state.refresh_controller.status()


@router.post('/watchlist')
async def add_to_watchlist(req: AddSymbolRequest, request: Request):
    watchlist = request.app.state.watchlist
    try:
        added = watchlist.add(req.symbol)
    except ValueError as exc:
        if str(exc) == 'INVALID_SYMBOL':
            raise HTTPException(status_code=400, detail='INVALID_SYMBOL') from exc
        raise
    return {'added': added, 'symbols': watchlist.symbols()}


@router.delete('/watchlist/{symbol}')
async def remove_from_watchlist(symbol: str, request: Request):
    watchlist = request.app.state.watchlist
    removed = watchlist.remove(symbol)
    return {'removed': removed, 'symbols': watchlist.symbols()}


@router.get('/metrics/watchlist')
async def watchlist_metrics(request: Request):
    metrics = request.app.state.quote_fanout.metrics()
    metrics.update(request.app.state.refresh_controller.metrics())
    metrics['symbols'] = len(request.app.state.watchlist)
    return metrics
