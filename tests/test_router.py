"""Tests for perch.state.router — the StateRouter navigation surface."""

import pytest

from perch.config import RouterConfig
from perch.errors import DuplicateStateError
from perch.routing.url_router import Location
from perch.state.router import StateRouter
from perch.state.types import StateDefinition


def _router(config: RouterConfig | None = None, location: Location | None = None) -> StateRouter:
    router = StateRouter(config, location=location)
    (
        router.state("home", url="/")
        .state("about", url="/about")
        .state("blog", url="/blog", resolve={"posts": lambda: ["1", "2"]})
        .state("blog.post", url="/post/{post}")
        .state("blog.post.comments")
        .state("blog.archive", url="/archive?year")
    )
    return router


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    def test_keyword_form(self) -> None:
        router = StateRouter().state("home", url="/")
        assert router.get("home").url == "/"

    def test_mapping_form(self) -> None:
        router = StateRouter().state("home", {"url": "/", "data": {"x": 1}})
        assert router.get("home").data == {"x": 1}

    def test_definition_forms(self) -> None:
        router = StateRouter()
        router.state(StateDefinition(name="a", url="/a"))
        router.state("b", StateDefinition(name="ignored", url="/b"))
        router.state({"name": "c", "url": "/c"})
        assert router.get("a").url == "/a"
        assert router.get("b").name == "b"
        assert router.get("c").url == "/c"

    def test_unknown_key(self) -> None:
        with pytest.raises(TypeError, match="Unknown state definition keys"):
            StateRouter().state("home", {"uri": "/"})

    def test_register_returns_node(self) -> None:
        router = StateRouter()
        node = router.register(StateDefinition(name="home", url="/"))
        assert router.find("home") is node

    def test_duplicate(self) -> None:
        router = StateRouter().state("home")
        with pytest.raises(DuplicateStateError):
            router.state("home")

    def test_contains(self) -> None:
        router = _router()
        assert "blog.post" in router
        assert "nope" not in router

    def test_get(self) -> None:
        definition = StateDefinition(name="home", url="/")
        router = StateRouter().state(definition)
        assert router.get("home") is definition
        assert router.get(definition) is definition
        assert router.get("missing") is None

    def test_initial_state(self) -> None:
        router = _router()
        assert router.current.name == ""
        assert router.params == {}
        assert router.views == {}
        assert not router.is_transitioning


# =============================================================================
# Navigation
# =============================================================================


class TestNavigation:
    @pytest.mark.asyncio
    async def test_transition_to(self) -> None:
        router = _router()
        result = await router.transition_to("blog.post", {"post": "42"})
        assert result is router.get("blog.post")
        assert router.current is result
        assert router.current_node is router.find("blog.post")
        assert router.params == {"post": "42"}
        assert router.state_params == {"post": "42"}
        assert router.location.url == "/blog/post/42"

    @pytest.mark.asyncio
    async def test_go_to_parent(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "42"})
        await router.go("^")
        assert router.current.name == "blog"

    @pytest.mark.asyncio
    async def test_go_to_child_inherits(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "42"})
        await router.go(".comments")
        assert router.current.name == "blog.post.comments"
        assert router.params == {"post": "42"}

    @pytest.mark.asyncio
    async def test_go_to_sibling(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "42"})
        await router.go("^.archive", {"year": 2024})
        assert router.current.name == "blog.archive"
        assert router.location.url == "/blog/archive?year=2024"

    @pytest.mark.asyncio
    async def test_transition_to_does_not_inherit(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "42"})
        await router.transition_to("blog.post.comments")
        assert router.params == {"post": None}


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    @pytest.mark.asyncio
    async def test_is_state(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "1"})
        assert router.is_state("blog.post") is True
        assert router.is_state("blog") is False
        assert router.is_state("missing") is None

    @pytest.mark.asyncio
    async def test_includes(self) -> None:
        router = _router()
        await router.go("blog.post.comments", {"post": "1"})
        assert router.includes("blog") is True
        assert router.includes("blog.post") is True
        assert router.includes("blog.post.comments") is True
        assert router.includes("home") is False
        assert router.includes("missing") is None

    @pytest.mark.asyncio
    async def test_includes_by_definition(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "1"})
        assert router.includes(router.get("blog")) is True


# =============================================================================
# href
# =============================================================================


class TestHref:
    def test_hash_prefixed(self) -> None:
        assert _router().href("blog.post", {"post": "42"}) == "#/blog/post/42"

    def test_html5_mode(self) -> None:
        router = _router(RouterConfig(html5_mode=True))
        assert router.href("blog.post", {"post": "42"}) == "/blog/post/42"

    def test_custom_prefix(self) -> None:
        router = _router(RouterConfig(hash_prefix="#!"))
        assert router.href("about") == "#!/about"

    def test_lossy_uses_navigable_ancestor(self) -> None:
        router = _router()
        assert router.href("blog.post.comments", {"post": "7"}) == "#/blog/post/7"

    def test_not_lossy(self) -> None:
        assert _router().href("blog.post.comments", {"post": "7"}, lossy=False) is None

    def test_unknown(self) -> None:
        assert _router().href("missing") is None

    def test_query_params(self) -> None:
        assert _router().href("blog.archive", {"year": 2024}) == "#/blog/archive?year=2024"
        assert _router().href("blog.archive") == "#/blog/archive"

    @pytest.mark.asyncio
    async def test_relative_to_current(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "1"})
        assert router.href("^") == "#/blog"

    @pytest.mark.asyncio
    async def test_inherit(self) -> None:
        router = _router()
        await router.go("blog.post", {"post": "1"})
        assert router.href("blog.post.comments", inherit=True) == "#/blog/post/1"
        assert router.href("blog.post.comments") == "#/blog/post/"

    @pytest.mark.asyncio
    async def test_does_not_navigate(self) -> None:
        router = _router()
        router.href("blog.post", {"post": "1"})
        assert router.current.name == ""
        assert router.location.history == [""]


# =============================================================================
# Location sync
# =============================================================================


class TestSync:
    @pytest.mark.asyncio
    async def test_url_to_state(self) -> None:
        router = _router()
        assert await router.sync("/blog/post/42") is True
        assert router.current.name == "blog.post"
        assert router.params == {"post": "42"}
        # Location changes are not pushed back
        assert router.location.history == ["", "/blog/post/42"]

    @pytest.mark.asyncio
    async def test_query_params(self) -> None:
        router = _router()
        await router.sync("/blog/archive?year=2023")
        assert router.current.name == "blog.archive"
        assert router.params == {"year": "2023"}

    @pytest.mark.asyncio
    async def test_initial_location(self) -> None:
        router = _router(location=Location("/about"))
        await router.sync()
        assert router.current.name == "about"

    @pytest.mark.asyncio
    async def test_otherwise(self) -> None:
        router = _router().otherwise("/")
        assert await router.sync("/missing") is True
        assert router.current.name == "home"
        assert router.location.url == "/"

    @pytest.mark.asyncio
    async def test_unmatched(self) -> None:
        router = _router()
        assert await router.sync("/missing") is False
        assert router.current.name == ""

    @pytest.mark.asyncio
    async def test_same_url_keeps_state(self) -> None:
        entered: list[str] = []
        router = StateRouter().state(
            "post", url="/post/{post}", on_enter=lambda: entered.append("post")
        )
        await router.sync("/post/1")
        await router.sync("/post/1")
        assert entered == ["post"]

    @pytest.mark.asyncio
    async def test_substate_keeps_navigable(self) -> None:
        router = _router()
        await router.go("blog.post.comments", {"post": "1"})
        await router.sync("/blog/post/1")
        assert router.current.name == "blog.post.comments"

    @pytest.mark.asyncio
    async def test_abstract_states_not_routed(self) -> None:
        router = StateRouter().state("admin", url="/admin", abstract=True)
        assert await router.sync("/admin") is False


# =============================================================================
# Events
# =============================================================================


class TestEvents:
    @pytest.mark.asyncio
    async def test_success_listener(self) -> None:
        router = _router()
        seen: list[str] = []
        router.events.on_success(lambda event: seen.append(event.to.name))
        await router.go("about")
        assert seen == ["about"]

    @pytest.mark.asyncio
    async def test_views_of_active_state(self) -> None:
        router = StateRouter().state("home", url="/", template="<h1>Home</h1>")
        await router.go("home")
        assert router.views["@"].template == "<h1>Home</h1>"


# =============================================================================
# End to end
# =============================================================================


class TestBlogScenario:
    @pytest.mark.asyncio
    async def test_home_to_post(self) -> None:
        log: list[str] = []
        router = StateRouter()
        for name, url, resolve in (
            ("home", "/", None),
            ("blog", "/blog", {"posts": lambda: ["41", "42"]}),
            ("blog.post", "/post/:post", {"post": lambda state_params: f"#{state_params['post']}"}),
        ):
            router.state(
                name,
                url=url,
                resolve=resolve,
                on_enter=lambda name=name: log.append(f"enter {name}"),
                on_exit=lambda name=name: log.append(f"exit {name}"),
            )

        await router.go("home")
        log.clear()
        await router.go("blog.post", {"post": "42"})

        assert log == ["exit home", "enter blog", "enter blog.post"]
        post = router.current_node.locals
        assert post.globals["posts"] == ["41", "42"]
        assert post.globals["post"] == "#42"
        assert router.href("blog.post", {"post": "42"}) == "#/blog/post/42"
        assert router.location.url == "/blog/post/42"
