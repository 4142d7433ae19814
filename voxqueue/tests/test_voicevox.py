import asyncio
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from voxqueue.core.config import SynthesisConfig
from voxqueue.core.exceptions import SynthesisError
from voxqueue.synthesis.voicevox import VoicevoxClient

SPEAKERS = [{"name": "四国めたん", "speaker_uuid": "7ffcb7ce", "styles": [{"name": "ノーマル", "id": 2}]}]

def make_app():
    app = web.Application()

    async def audio_query(request):
        return web.json_response({
            "text": request.query["text"],
            "speaker": int(request.query["speaker"]),
            "speedScale": 1.0,
            "prePhonemeLength": 0.1,
        })

    async def synthesis(request):
        if request.query["speaker"] == "99":
            return web.Response(status=422, text="speaker not found")
        body = await request.json()
        return web.Response(body=b"RIFF" + json.dumps(body).encode(), content_type="audio/wav")

    async def speakers(request):
        return web.json_response(SPEAKERS)

    async def speaker_info(request):
        return web.json_response({"policy": "ok", "uuid": request.query["speaker_uuid"]})

    async def version(request):
        return web.json_response("0.14.7")

    async def slow(request):
        await asyncio.sleep(1)
        return web.json_response({})

    app.router.add_post("/audio_query", audio_query)
    app.router.add_post("/synthesis", synthesis)
    app.router.add_get("/speakers", speakers)
    app.router.add_get("/speaker_info", speaker_info)
    app.router.add_get("/version", version)
    app.router.add_post("/audio_query_from_preset", slow)
    return app

def client_for(server, timeout=5.0):
    return VoicevoxClient(SynthesisConfig(url=f"http://{server.host}:{server.port}/", timeout_seconds=timeout))

@pytest.mark.asyncio
async def test_build_query_and_synthesize():
    async with TestServer(make_app()) as server:
        client = client_for(server)

        query = await client.build_query("こんにちは", 2)
        assert query["text"] == "こんにちは"
        assert query["speaker"] == 2

        audio = await client.synthesize(query, 2)
        assert audio.startswith(b"RIFF")
        assert json.loads(audio[4:]) == query

@pytest.mark.asyncio
async def test_non_200_raises_synthesis_error():
    async with TestServer(make_app()) as server:
        client = client_for(server)

        with pytest.raises(SynthesisError) as exc_info:
            await client.synthesize({"speedScale": 1.0}, 99)

        assert exc_info.value.status == 422
        assert exc_info.value.speaker == 99

@pytest.mark.asyncio
async def test_speaker_endpoints():
    async with TestServer(make_app()) as server:
        client = client_for(server)

        assert await client.get_speakers() == SPEAKERS
        info = await client.get_speaker_info("7ffcb7ce")
        assert info["uuid"] == "7ffcb7ce"

@pytest.mark.asyncio
async def test_check_health_reports_version():
    async with TestServer(make_app()) as server:
        client = client_for(server)
        health = await client.check_health()

    assert health["connected"] is True
    assert health["version"] == "0.14.7"
    assert not health["url"].endswith("/")

@pytest.mark.asyncio
async def test_timeout_raises_synthesis_error():
    async with TestServer(make_app()) as server:
        client = client_for(server, timeout=0.1)

        with pytest.raises(SynthesisError, match="timed out"):
            await client.build_query_from_preset("hi", 1)

@pytest.mark.asyncio
async def test_unreachable_engine():
    async with TestServer(make_app()) as server:
        client = client_for(server)
    # server is shut down now

    with pytest.raises(SynthesisError):
        await client.build_query("hi", 1)
    health = await client.check_health()
    assert health["connected"] is False
