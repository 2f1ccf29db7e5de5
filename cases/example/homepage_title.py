"""Example case: the landing page renders a title and at least one link."""

config = {
    "project": "example",
    "name": "homepage title",
    "entries": [{"url": "https://example.com/"}],
}


async def run(page, crawl, options):
    title = await page.title()
    if "Example" not in title:
        options.case.status = "FAIL"
        crawl.logger.error("unexpected title %r on %s", title, options.url)
        return {"title": title}

    soup = await crawl.soup()
    links = [a.get("href") for a in soup.find_all("a", href=True)]
    if not links:
        options.case.status = "FAIL"
    return {"title": title, "links": links}
