# profkit

Building blocks for a performance-profile viewer. The package reads ELF
binaries and works out their base addresses. It opens profile sources from
URLs or files and tracks where binary mappings came from. It also builds
flame-graph trees and provides the parsing and completion helpers an
interactive profile shell needs. It uses only the standard library.

## Installation

```
pip install profkit
```

To run the test suite:

```
pip install "profkit[test]"
pytest
```

## Modules

### `profkit.elfexec`

- `read_elf(data)` parses the file header, program headers and section
  headers of a 32- or 64-bit ELF image. It returns an `ElfFile` holding
  `ProgHeader` and `Section` entries.
- `parse_notes(data, alignment, byteorder)` decodes a note section into
  `ElfNote` values.
- `get_build_id(data)` returns the GNU build ID as bytes, or `None` if there
  is none. It raises `ValueError` if more than one build ID is found.
- `get_base(file_type, load_segment, stext_offset, start, limit, offset)`
  computes the base to subtract from a runtime address to get a symbol
  address. `file_type` is an `ElfType`. Kernel images are handled with
  heuristics, and `ValueError` is raised for layouts it cannot handle.
- `find_text_prog_header(elf_file)` returns the executable `PT_LOAD` segment
  that holds `.text`.

### `profkit.tempfiles`

- `new_temp_file(directory, prefix, suffix)` creates and opens the first free
  file named `prefix` + `NNN` + `suffix`, for example `pprof.001.pb.gz`.
- `defer_delete_temp_file(path)` marks a file for removal.
- `cleanup_temp_files()` removes every marked file.

### `profkit.svg`

`massage_svg(svg, pan_script="")` makes Graphviz SVG fill the page. It wraps
the graph in a `viewport` group, embeds the given JavaScript in front of the
graph, and fixes unquoted `&;` sequences.

### `profkit.flags`

`FlagSet` defines flags with `add_bool`, `add_int`, `add_float`,
`add_string` and `add_string_list`.

- `parse(usage, argv=None)` reads leading `-name value` / `-name=value` flags
  and returns the remaining arguments.
- On a malformed command line, `parse` calls `usage` and then raises
  `FlagError`.
- `parse` also calls `usage` when no arguments remain.
- `get(name)` returns a flag's value. Flags defined with `add_string_list`
  come back as a one-element list.
- `add_extra_usage` and `extra_usage` collect additional help text.

### `profkit.ui`

- `StdUI` is a console UI. `read_line` shows a prompt and raises `EOFError`
  at the end of input. `print` and `print_err` write to stderr.
- `ErrorCatcher(ui)` wraps another UI and records each `print_err` message
  in `errors`.
- `open_output(name)` creates a file for report output.

### `profkit.mappings`

- `Mapping` describes a memory mapping, and `MappingSource` records the
  source a mapping was fetched from.
- `collect_mapping_sources`, `unsource_mappings` and `merge_mapping_sources`
  track those sources.
- `locate_binaries(mappings, exec_name, build_id, obj, ui)` searches
  `PPROF_BINARY_PATH` for local copies of binaries. The default search path
  is `$HOME/pprof/binaries`.
  - `obj` must provide `open(name, start, limit, offset)`, which returns an
    object with a `build_id` attribute and a `close()` method.
  - A file whose build ID does not match is skipped, with a message to
    `ui.print_err`.

### `profkit.fetch`

- `adjust_url(source, duration, timeout)` recognises profile URLs, including
  the `host:port/path` form. It returns the cleaned URL and the timeout in
  seconds, or `("", 0)` when the source is not a URL.
- `open_profile_source(source, duration, timeout, ui)` opens a profile from
  an HTTP URL, from a `perf.data` file (converted with the external
  `perf_to_profile` tool), or from a plain file. It returns the stream and
  the source URL.
- `fetch_url`, `status_code_error`, `is_perf_file` and `convert_perf_data`
  are the underlying steps. Failures raise `FetchError`.
- `set_tmp_dir(ui)` picks a directory for saved profiles: `PPROF_TMPDIR`,
  then `$HOME/pprof`, then the system temporary directory.
- `saved_profile_prefix` builds the file name prefix for a saved profile.

### `profkit.flamegraph`

`build_flame_tree(nodes, edges, total, format_value, shorten=None)` turns
`(name, cumulative value)` nodes and `(caller, callee)` index edges into a
`TreeNode` tree. Nodes without callers hang under a synthetic `root`.
`TreeNode.to_json()` produces the compact `n/f/v/l/p/c` JSON a flame-graph
script reads.

### `profkit.completion`

- `Shortcuts.expand` and `profile_shortcuts` handle command aliases, such as
  `total_<type>` and `mean_<type>` for each sample type.
- `parse_assignment`, `cat_regex` and `split_tail_digits` parse shell input
  such as `focus=main //: comment` and `top10`.
- `new_completer(functions, commands, variables)` returns a tab-completion
  function.
- `match_name` and `function_completer` do the prefix and substring matching
  behind it.
- `group_options` groups option names by their group.

### `profkit.web`

- `split_host_port`, `join_host_port` and `get_host_and_port` handle listen
  addresses. An empty host means `localhost`, and an empty port picks a free
  one.
- `is_localhost`, `get_from_legend`, `redirect_target` and `browser_url` are
  helpers for a local browser view.
- `dot_to_svg(dot)` renders DOT with Graphviz. It needs `dot` on the `PATH`.

## Example

```python
from profkit.completion import cat_regex, split_tail_digits
from profkit.elfexec import ElfType, get_base
from profkit.flamegraph import build_flame_tree
from profkit.web import get_host_and_port

assert get_base(ElfType.DYN, None, None, 0x200000, 0x300000, 0) == 0x200000
assert cat_regex("focus1", "focus2") == "focus1|focus2"
assert split_tail_digits("top10") == ("top", "10")
assert get_host_and_port(":4681") == ("localhost", 4681)

tree = build_flame_tree([("main", 300), ("work", 200)], [(0, 1)], 300, str)
print(tree.to_json())
```

## What it does not do

profkit does not contain the following:

- a profile data model, a protobuf profile parser, or profile merging and
  scaling;
- a symbolizer;
- report generation (text, graph, source or disassembly listings);
- the interactive shell loop;
- an HTTP server for the web view.

It provides the pieces around those parts, and it installs no command-line
program.