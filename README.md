# codenexus

Keep track of how the files in a code base relate to each other. For any
project directory you can:

- attach **tags** of the form `type:value` (for example `category:api`) to files,
  and query them with `AND`, `OR`, `NOT` and `*` wildcards;
- attach a free-text **comment** to a file;
- record directed **relations** between files, each with a description, and
  look them up in both directions.

All data for a project is stored as JSON in a `.codenexus/` directory inside
the project (`tags.json`, `comments.json`, `relations.json`). Before each
save the previous file is copied to `tags.json.bak`, `comments.json.bak` or
`relations.json.bak`.

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Running the server

```
codenexus
codenexus --log-level INFO
```

This starts a tool server that speaks JSON-RPC 2.0 over standard input and
standard output, one JSON message per line, until input ends. It answers
`initialize`, `ping`, `tools/list` and `tools/call`; notifications get no
reply. Log messages go to standard error; the level is taken from
`--log-level`, or else from the `CODENEXUS_LOG` environment variable, or else
`WARNING`.

Every tool takes a `project_path` argument naming the project root. The tools
are `add_file_tags`, `remove_file_tags`, `query_files_by_tags`,
`get_all_tags`, `add_file_comment`, `update_file_comment`,
`add_file_relation`, `remove_file_relation`, `query_file_relations`,
`query_incoming_relations`, `get_file_info`, `get_system_status` and
`search_files`. `codenexus.protocol.tool_definitions()` returns their names,
descriptions and input schemas. A tool's reply is returned as a single text
content item.

## Using it from Python

```python
from codenexus.server import CodeNexusServer

server = CodeNexusServer()
print(server.add_file_tags("/path/to/project", "src/api.py", ["category:api", "status:stable"]))
print(server.add_file_comment("/path/to/project", "src/api.py", "HTTP entry points"))
print(server.add_file_relation("/path/to/project", "src/api.py", "src/models.py", "uses the models"))

print(server.query_files_by_tags("/path/to/project", "category:api AND NOT status:deprecated"))
print(server.get_file_info("/path/to/project", "src/api.py"))
print(server.get_system_status("/path/to/project"))
```

Each tool method returns a string. Successful changes return
`{"success": true, "message": ...}` and lookups return their data as JSON.
Errors raised by the managers come back as
`{"error": {"code": ..., "message": ..., "suggestion": ...}}`, produced by
`codenexus.errors.format_error_response`. A project path or file path that
fails validation is reported as plain text instead, for example
`项目路径验证失败: ...` or `文件路径验证失败: ...`.

`CodeNexusServer.get_or_create_project` loads a project once and returns the
same `ProjectManager` on later calls with the same path.

The lower layers can be used directly as well: `JsonStorage` in
`codenexus.storage`, `TagManager` in `codenexus.tags`, `CommentManager` in
`codenexus.comments`, `RelationManager` in `codenexus.relations`,
`QueryEngine` in `codenexus.engine`, and the path helpers in
`codenexus.paths`. All errors derive from `codenexus.errors.CodeNexusError`
and carry a `code` and a `suggestion`.

## Tag queries

| Query                 | Meaning                                        |
|-----------------------|------------------------------------------------|
| `category:api`        | files with exactly this tag                    |
| `category:*`          | files with any tag of type `category`          |
| `a:b AND c:d`         | files with both tags                           |
| `a:b OR c:d`          | files with either tag                          |
| `NOT a:b`             | files that have tags, but not `a:b`            |
| `a:b AND NOT c:d`     | files with `a:b` that lack `c:d`               |

A query is split on `OR` first, then each part on `AND`, then a leading
`NOT` is applied. Parentheses around a whole term are removed, but they do
not change that order of splitting, so they cannot be used for grouping.

## Limits

- `TagManager.get_untagged_files` does not scan the project tree and always
  returns an empty list.
- `CommentManager.cleanup_invalid_comments` and
  `RelationManager.cleanup_invalid_relations` test the stored relative paths
  against the current working directory, not against the project root.