# tests/helpers.py
from io import BytesIO

from PIL import Image

BASE = "https://feed.test/v13/datafeed/"
BRANCH_URL = BASE + "branch/10"


def jpeg_bytes(size=(800, 600), color=(200, 30, 30)):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def png_bytes(size=(400, 300), color=(0, 120, 200, 128)):
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeResponse:
    def __init__(self, status_code=200, text="", content=None, headers=None):
        self.status_code = status_code
        self.text = text
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = headers or {}


class FakeHTTP:
    """Stand-in for requests.Session: routes map a url to a response, a list
    of responses (consumed in order, last one repeats) or a callable."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def _respond(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        handler = self.routes.get(url)
        if handler is None:
            return FakeResponse(404)
        if callable(handler):
            return handler(method, url, kwargs)
        if isinstance(handler, list):
            return handler.pop(0) if len(handler) > 1 else handler[0]
        return handler

    def get(self, url, **kwargs):
        return self._respond("GET", url, kwargs)

    def head(self, url, **kwargs):
        return self._respond("HEAD", url, kwargs)

    def count(self, url, method="GET"):
        return sum(1 for m, u, _ in self.calls if u == url and m == method)


def branch_list_xml(branch_id="10", name="Tudor Lettings", url=BRANCH_URL):
    return f"""<?xml version="1.0" encoding="utf-8"?>
<branches>
  <branch>
    <name>{name}</name>
    <firmid>1</firmid>
    <branchid>{branch_id}</branchid>
    <url>{url}</url>
    <address><line1>1 Market Place</line1><town>Swindon</town><postcode>SN1 1AA</postcode></address>
    <telephone>01793 000000</telephone>
    <email>lettings@example.test</email>
  </branch>
</branches>"""


def summary_xml(*prop_ids, lastchanged="2024-05-01T10:20:30.123"):
    items = "".join(
        f"<property><prop_id>{pid}</prop_id><lastchanged>{lastchanged}</lastchanged>"
        f"<url>{BRANCH_URL}/property/{pid}</url></property>"
        for pid in prop_ids
    )
    return f'<?xml version="1.0" encoding="utf-8"?><properties>{items}</properties>'


def image_files_xml(pid, names):
    return "".join(
        f'<file type="0"><name>{n}</name><url>https://img.test/{pid}/{n}.jpg</url><caption>{n} view</caption></file>'
        for n in names
    )


def detail_xml(pid="1001", database="2", prop_type="Flat", web_status="100", images=("front", "kitchen"),
               extra_files=""):
    return f"""<?xml version="1.0" encoding="utf-8"?>
<property id="{pid}" database="{database}">
  <reference><agents>REF{pid}</agents></reference>
  <address>
    <name>12</name><street>High Street</street><locality>Old Town</locality>
    <town>Swindon</town><county>Wiltshire</county><postcode>SN1 1AA</postcode>
    <display>High Street, Swindon</display>
  </address>
  <price currency_code="GBP"><value>950</value><qualifier>pcm</qualifier><display_text>£950 pcm</display_text></price>
  <type>{prop_type}</type>
  <web_status>{web_status}</web_status>
  <bedrooms>2</bedrooms><bathrooms>1</bathrooms><receptions>1</receptions>
  <description>&lt;p&gt;A bright two bedroom flat.&lt;/p&gt;</description>
  <latitude>51.56</latitude><longitude>-1.78</longitude>
  <files>
    {image_files_xml(pid, images)}
    <file type="2"><name>Floorplan</name><url>https://img.test/{pid}/plan.pdf</url></file>
    <file type="7"><name>Brochure</name><url>https://img.test/{pid}/brochure.pdf</url></file>
    <file type="9"><name>EPC</name><url>https://img.test/{pid}/epc.png</url></file>
    {extra_files}
  </files>
</property>"""


def feed_routes(details, images=None, token="abc123"):
    """Routes for a one-branch feed. ``details`` maps prop id -> detail xml (or a FakeResponse)."""

    def branch(method, url, kwargs):
        if "auth" in kwargs:
            return FakeResponse(200, text="", headers={"Token": token})
        return FakeResponse(200, text=branch_list_xml())

    routes = {
        BASE + "branch": branch,
        BRANCH_URL + "/property": FakeResponse(200, text=summary_xml(*details.keys())),
    }
    for pid, body in details.items():
        routes[f"{BRANCH_URL}/property/{pid}"] = body if isinstance(body, FakeResponse) else FakeResponse(200, text=body)
    for url, body in (images or {}).items():
        routes[url] = body
    return routes
