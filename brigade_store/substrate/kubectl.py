"""Substrate implementation that talks to a cluster by running kubectl.

Lists and watches go through `kubectl get --raw` against the core API so that
a watch can resume from the resource version returned by the list. Writes use
the regular `create`, `replace` and `delete` verbs.
"""

from collections.abc import AsyncGenerator, Mapping
import json
import logging
from typing import Any, TypeVar
from urllib.parse import urlencode

from brigade_store import command
from brigade_store.exceptions import (
    CommandException,
    MalformedStateError,
    SubstrateNotFound,
)
from brigade_store.labels import format_selector

from .objects import ObjectList, Pod, Secret, WatchEvent
from .substrate import Substrate

__all__ = ["KubectlSubstrate"]

_LOGGER = logging.getLogger(__name__)

KUBECTL_BIN = "kubectl"

T = TypeVar("T", Secret, Pod)

_NOT_FOUND_MARKERS = ("NotFound", "not found")


def _is_not_found(err: CommandException) -> bool:
    message = str(err)
    return any(marker in message for marker in _NOT_FOUND_MARKERS)


def _loads(content: str, what: str) -> dict[str, Any]:
    try:
        doc = json.loads(content)
    except json.JSONDecodeError as err:
        raise MalformedStateError(f"Unable to decode {what}: {err}") from err
    if not isinstance(doc, dict):
        raise MalformedStateError(f"Unexpected {what}: {content[:200]}")
    return doc


class KubectlSubstrate(Substrate):
    """Substrate backed by the kubectl command line tool."""

    def __init__(
        self,
        namespace: str,
        kubeconfig: str | None = None,
        context: str | None = None,
    ) -> None:
        """Initialize KubectlSubstrate."""
        self._namespace = namespace
        self._kubeconfig = kubeconfig
        self._context = context

    @property
    def namespace(self) -> str:
        return self._namespace

    def _command(self, args: list[str]) -> command.Command:
        cmd = [KUBECTL_BIN]
        if self._kubeconfig:
            cmd.extend(["--kubeconfig", self._kubeconfig])
        if self._context:
            cmd.extend(["--context", self._context])
        cmd.extend(["--namespace", self._namespace])
        return command.Command(cmd + args)

    def _path(
        self,
        resource: str,
        selector: Mapping[str, str] | None,
        **params: str,
    ) -> str:
        query = dict(params)
        if selector:
            query["labelSelector"] = format_selector(selector)
        path = f"/api/v1/namespaces/{self._namespace}/{resource}"
        if query:
            path = f"{path}?{urlencode(query)}"
        return path

    async def _list(
        self, resource: str, cls: type[T], selector: Mapping[str, str] | None
    ) -> ObjectList[T]:
        out = await command.run(
            self._command(["get", "--raw", self._path(resource, selector)])
        )
        doc = _loads(out, f"{resource} list")
        return ObjectList(
            items=[cls.parse_doc(item) for item in doc.get("items") or []],
            resource_version=(doc.get("metadata") or {}).get("resourceVersion"),
        )

    async def _watch(
        self,
        resource: str,
        cls: type[T],
        resource_version: str | None,
        selector: Mapping[str, str] | None,
    ) -> AsyncGenerator[WatchEvent[T], None]:
        params = {"watch": "1"}
        if resource_version:
            params["resourceVersion"] = resource_version
        cmd = self._command(["get", "--raw", self._path(resource, selector, **params)])
        async for line in command.stream(cmd):
            if not line.strip():
                continue
            doc = _loads(line, f"{resource} watch event")
            event_type = doc.get("type")
            if event_type == "BOOKMARK":
                continue
            if event_type == "ERROR":
                # Typically 410 Gone when the resource version is too old
                status = doc.get("object") or {}
                raise CommandException(
                    f"Watch of {resource} failed: {status.get('message', doc)}"
                )
            yield WatchEvent.parse_doc(doc, cls)

    async def _delete(self, resource: str, name: str) -> None:
        _LOGGER.debug("Deleting %s %s", resource, name)
        await command.run(
            self._command(
                [
                    "delete",
                    resource,
                    name,
                    "--ignore-not-found",
                    "--grace-period=0",
                    "--wait=false",
                ]
            )
        )

    async def _write(self, verb: str, secret: Secret) -> Secret:
        stdin = json.dumps(secret.to_doc()).encode("utf-8")
        try:
            out = await command.run(
                self._command([verb, "-f", "-", "-o", "json"]), stdin=stdin
            )
        except CommandException as err:
            if verb == "replace" and _is_not_found(err):
                raise SubstrateNotFound(str(err)) from err
            raise
        return Secret.parse_doc(_loads(out, "secret"))

    async def list_secrets(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Secret]:
        return await self._list("secrets", Secret, selector)

    async def get_secret(self, name: str) -> Secret:
        try:
            out = await command.run(self._command(["get", "secret", name, "-o", "json"]))
        except CommandException as err:
            if _is_not_found(err):
                raise SubstrateNotFound(str(err)) from err
            raise
        return Secret.parse_doc(_loads(out, "secret"))

    async def create_secret(self, secret: Secret) -> Secret:
        return await self._write("create", secret)

    async def replace_secret(self, secret: Secret) -> Secret:
        return await self._write("replace", secret)

    async def delete_secret(self, name: str) -> None:
        await self._delete("secret", name)

    async def watch_secrets(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Secret], None]:
        async for event in self._watch("secrets", Secret, resource_version, selector):
            yield event

    async def list_pods(
        self, selector: Mapping[str, str] | None = None
    ) -> ObjectList[Pod]:
        return await self._list("pods", Pod, selector)

    async def delete_pod(self, name: str) -> None:
        await self._delete("pod", name)

    async def watch_pods(
        self,
        resource_version: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> AsyncGenerator[WatchEvent[Pod], None]:
        async for event in self._watch("pods", Pod, resource_version, selector):
            yield event

    def _logs_command(
        self, name: str, container: str | None, follow: bool
    ) -> command.Command:
        args = ["logs", name]
        if container:
            args.extend(["--container", container])
        if follow:
            args.append("--follow")
        return self._command(args)

    async def get_pod_log(self, name: str, container: str | None = None) -> str:
        try:
            return await command.run(self._logs_command(name, container, follow=False))
        except CommandException as err:
            if _is_not_found(err):
                raise SubstrateNotFound(str(err)) from err
            raise

    async def stream_pod_log(
        self, name: str, container: str | None = None, follow: bool = False
    ) -> AsyncGenerator[str, None]:
        async for line in command.stream(self._logs_command(name, container, follow)):
            yield line
