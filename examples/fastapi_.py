# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "httpgate[fastapi]",
#     "httpx",
# ]
#
# [tool.uv.sources]
# httpgate = { path = "../", editable = true }
# ///


import asyncio
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request, Response

from httpgate import EntityTag
from httpgate.asgi import ConditionalResponseMiddleware
from httpgate.fastapi import negotiate, public_response_caching, validate_preconditions

app = FastAPI()

article = {"title": "Hello", "version": 1, "updated_at": datetime.now(timezone.utc)}


@app.get("/article", dependencies=[public_response_caching(60, vary="Accept")])
async def read_article(request: Request, response: Response):
    short_circuit = validate_preconditions(
        request,
        response,
        etag=EntityTag.from_string(False, str(article["version"])),
        last_modified=article["updated_at"],
    )
    if short_circuit is not None:
        return short_circuit
    return negotiate(request, {"title": article["title"], "version": article["version"]})


@app.get("/static")
async def read_static():
    return Response("static content", headers={"ETag": '"static-1"'})


async def main():
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=ConditionalResponseMiddleware(app)), base_url="http://testserver"
    ) as client:
        response = await client.get("/article", headers={"Accept": "text/plain"})
        print(f"First request: status={response.status_code} etag={response.headers['etag']} body={response.text}")

        response = await client.get("/article", headers={"If-None-Match": response.headers["etag"]})
        print(f"Revalidation: status={response.status_code}")

        response = await client.get("/static", headers={"If-None-Match": '"static-1"'})
        print(f"Middleware revalidation: status={response.status_code}")


if __name__ == "__main__":
    asyncio.run(main())
