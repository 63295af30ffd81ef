import asyncio

from aiohttp import web

TOKEN = "e2e-token"
USER_ID = 42


def record(request: web.Request, body: str):
    hits = request.app['hits']
    hits[request.path] = hits.get(request.path, 0) + 1
    request.app['requests'].append({
        'path': request.path,
        'method': request.method,
        'headers': dict(request.headers),
        'body': body,
    })


def authorized(request: web.Request) -> bool:
    return request.headers.get('Authorization') == f"Bearer {TOKEN}"


async def handle_auth(request: web.Request) -> web.Response:
    body = await request.text()
    record(request, body)
    data = await request.json()
    if data.get('username') != 'testuser':
        return web.json_response({'error': 'bad credentials'}, status=401)
    return web.json_response({'access_token': TOKEN, 'expires_in': 3600})


async def handle_profile(request: web.Request) -> web.Response:
    record(request, await request.text())
    if not authorized(request):
        return web.json_response({'error': 'unauthorized'}, status=401)
    return web.json_response({'id': USER_ID, 'name': 'Test User', 'roles': ['admin', 'dev']})


async def handle_posts(request: web.Request) -> web.Response:
    record(request, await request.text())
    if not authorized(request):
        return web.json_response({'error': 'unauthorized'}, status=401)
    user_id = request.match_info['user_id']
    return web.json_response([{'id': 1, 'user_id': user_id}, {'id': 2, 'user_id': user_id}])


async def handle_echo(request: web.Request) -> web.Response:
    body = await request.text()
    record(request, body)
    return web.json_response({'path': request.path, 'method': request.method, 'body': body})


async def handle_slow(request: web.Request) -> web.Response:
    record(request, await request.text())
    await asyncio.sleep(float(request.query.get('delay', '1')))
    return web.json_response({'path': request.path})


async def create_mock_server():
    app = web.Application()
    app['hits'] = {}
    app['requests'] = []
    app.router.add_post('/auth', handle_auth)
    app.router.add_get('/profile', handle_profile)
    app.router.add_get('/users/{user_id}/posts', handle_posts)
    app.router.add_get('/ping', handle_echo)
    app.router.add_post('/echo', handle_echo)
    app.router.add_get('/slow', handle_slow)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '127.0.0.1', 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]
    base_url = f'http://127.0.0.1:{port}'
    return runner, base_url, app['hits'], app['requests']


async def shutdown_mock_server(runner):
    await runner.cleanup()
