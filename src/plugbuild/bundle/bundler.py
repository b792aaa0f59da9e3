from __future__ import annotations

import json
import logging
from pathlib import Path

from plugbuild.bundle.externals import ExternalsPolicy, default_policy, render_global_path
from plugbuild.bundle.graph import BundleWarning, ModuleGraph, WarningHandler, build_graph
from plugbuild.bundle.lexer import JsSyntaxError
from plugbuild.bundle.resolve import ModuleResolver
from plugbuild.config import WarningPolicy
from plugbuild.engines.base import SyntaxEngine
from plugbuild.errors import BundleWriteError, TransformError
from plugbuild.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

_RUNTIME = """var __cache=[];
function __load(id){
var cached=__cache[id];
if(cached)return cached.exports;
var module={exports:{}};
__cache[id]=module;
var entry=__modules[id],deps=entry[1];
var require=function(specifier){
if(!Object.prototype.hasOwnProperty.call(deps,specifier))
throw new Error("Cannot find module '"+specifier+"'");
var target=deps[specifier];
return target<0?__externals[-target-1]:__load(target);
};
var dynamicImport=function(specifier){
return Promise.resolve().then(function(){return __namespace(require(specifier))});
};
entry[0].call(module.exports,require,module,module.exports,dynamicImport);
return module.exports;
}
function __export(target,getters){
for(var key in getters)Object.defineProperty(target,key,{enumerable:true,get:getters[key]});
}
function __exportStar(target,source){
if(source==null)return;
Object.keys(source).forEach(function(key){
if(key!=="default"&&!Object.prototype.hasOwnProperty.call(target,key))
Object.defineProperty(target,key,{enumerable:true,get:function(){return source[key]}});
});
}
function __default(value){return value&&value.__esModule?value["default"]:value}
function __namespace(value){
if(value&&value.__esModule)return value;
var ns={};
if(value!=null)Object.keys(value).forEach(function(key){ns[key]=value[key]});
ns["default"]=value;
return ns;
}
"""


def discard_warning(warning: BundleWarning) -> None:
    _ = warning


def log_warning(warning: BundleWarning) -> None:
    logger.warning(
        "bundle warning code=%s module=%s message=%s",
        warning.code,
        warning.module,
        warning.message,
    )


def warning_handler(policy: WarningPolicy) -> WarningHandler:
    return log_warning if policy == "log" else discard_warning


def render_bundle(graph: ModuleGraph) -> str:
    """Emit the graph as one self-executing closure returning the entry's named exports."""
    slots = [f"__g{slot}" for slot in range(len(graph.externals))]
    params = ["exports", *slots]
    arguments = ["{}", *(render_global_path(item.global_path) for item in graph.externals)]
    entries = []
    for module in graph.modules:
        deps = json.dumps(module.dependencies, separators=(",", ":"), ensure_ascii=False)
        entries.append(
            f"[function(require,module,exports,__import){{\n{module.code}\n}},{deps}]"
        )
    parts = [
        f"(function({','.join(params)}){{",
        '"use strict";',
        f"var __externals=[{','.join(slots)}];",
        "var __modules=[",
        ",\n".join(entries),
        "];",
        _RUNTIME,
        "var __main=__load(0);",
        "__exportStar(exports,__main);",
        'Object.defineProperty(exports,"default",'
        "{enumerable:true,get:function(){return __default(__main)}});",
        'Object.defineProperty(exports,"__esModule",{value:true});',
        "return exports;",
        f"}})({','.join(arguments)});",
    ]
    return "\n".join(parts) + "\n"


class Bundler:
    def __init__(
        self,
        engine: SyntaxEngine,
        *,
        policy: ExternalsPolicy | None = None,
        resolver: ModuleResolver | None = None,
        on_warning: WarningHandler | None = None,
    ) -> None:
        self.engine = engine
        self.policy = policy or default_policy()
        self.resolver = resolver or ModuleResolver()
        self.on_warning = on_warning or discard_warning

    def bundle(self, entry: Path) -> bytes:
        logger.info("bundle start entry=%s engine=%s", entry, self.engine.name)
        graph = build_graph(
            entry,
            engine=self.engine,
            policy=self.policy,
            resolver=self.resolver,
            on_warning=self.on_warning,
        )
        code = render_bundle(graph)
        try:
            result = self.engine.minify(code)
        except JsSyntaxError as exc:
            raise TransformError(f"bundle compaction failed: {exc}") from exc
        for message in result.warnings:
            self.on_warning(BundleWarning(code="MINIFY", message=message))
        data = result.code.encode("utf-8")
        logger.info("bundle complete entry=%s bytes=%s", entry, len(data))
        return data


def write_artifact(path: Path, data: bytes) -> None:
    """Persist the artifact whole or not at all."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_bytes(path, data)
    except OSError as exc:
        raise BundleWriteError(f"cannot write artifact {path}: {exc}") from exc
    logger.info("artifact written path=%s bytes=%s", path, len(data))
