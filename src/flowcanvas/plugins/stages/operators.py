"""Filter, map and merge operator templates.

Each operator runs a small shell pipeline per file (filter, map) or once
over every collected file (merge).
"""

import re
from typing import Any

from flowcanvas.contracts.params import FilterParams, MapParams, MergeParams
from flowcanvas.plugins.base import RenderRequest, StageTemplate
from flowcanvas.plugins.templates import ere_escape, sed_pattern, sed_replacement

FILTER_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
    path input_file

    output:
    path "*_filtered.txt"

    script:
    """
{% if pattern %}
    grep {{ flags }} -e {{ pattern | shell_quote | gscript }} "${input_file}" > "${input_file.baseName}_filtered.txt" || echo "# Filter: no lines {{ outcome }}" > "${input_file.baseName}_filtered.txt"
{% else %}
    cp "${input_file}" "${input_file.baseName}_filtered.txt"
{% endif %}
    """
}
'''

MAP_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
    path input_file

    output:
    path "*_mapped.txt"

    script:
    """
{% if translate %}
    tr {{ translate[0] }} {{ translate[1] }} < "${input_file}" > "${input_file.baseName}_mapped.txt"
{% elif expression %}
    sed {{ expression | shell_quote | gscript }} "${input_file}" > "${input_file.baseName}_mapped.txt"
{% else %}
    cp "${input_file}" "${input_file.baseName}_mapped.txt"
{% endif %}
    """
}
'''

MERGE_SOURCE = r'''
process {{ process_name }} {
    {{ directives }}

    input:
    path input_files

    output:
    path "{{ merged_name }}", emit: merged

    script:
    """
{% if fastq %}
    for f in ${input_files}; do
        LINES=\$(wc -l < "\$f")
        if [ \$((LINES % 4)) -ne 0 ]; then
            echo "ERROR: \$f is not a valid FASTQ (line count is not a multiple of 4)" >&2
            exit 1
        fi
        awk 'NR % 4 == 3 && \$1 !~ /^\\+/ { print "ERROR: " FILENAME ", line " NR " does not start with +" > "/dev/stderr"; exit 1 }' "\$f" || exit 1
    done

    cat ${input_files} > {{ merged_name }}

    LINES=\$(wc -l < {{ merged_name }})
    if [ \$((LINES % 4)) -ne 0 ]; then
        echo "ERROR: {{ merged_name }} is not a valid FASTQ (line count is not a multiple of 4)" >&2
        exit 1
    fi
{% elif separator %}
    : > {{ merged_name }}
    FIRST=1
    for f in ${input_files}; do
        if [ "\$FIRST" -eq 0 ]; then
            printf '%s' {{ separator | shell_quote | gscript }} >> {{ merged_name }}
        fi
        cat "\$f" >> {{ merged_name }}
        FIRST=0
    done
{% else %}
    cat ${input_files} > {{ merged_name }}
{% endif %}
    """
}
'''


class FilterOperator(StageTemplate):
    """Keep the lines of each file that match a condition."""

    name = "filter"
    description = "Keep lines containing, starting with, ending with or matching text"
    plugin_version = "1.0.0"
    source = FILTER_SOURCE

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, FilterParams)
        negate = " -v" if params.negate else ""
        if not params.text:
            return {"pattern": "", "flags": "", "outcome": ""}
        if params.mode == "contains":
            pattern, flags, outcome = params.text, f"-F{negate}", "contained the text"
        elif params.mode == "startsWith":
            pattern, flags, outcome = f"^{ere_escape(params.text)}", f"-E{negate}", "started with the text"
        elif params.mode == "endsWith":
            pattern, flags, outcome = f"{ere_escape(params.text)}$", f"-E{negate}", "ended with the text"
        else:
            pattern, flags, outcome = params.text, f"-E{negate}", "matched the pattern"
        if params.negate:
            outcome = "remained after exclusion"
        return {"pattern": pattern, "flags": flags, "outcome": outcome}


class MapOperator(StageTemplate):
    """Transform every line of each file."""

    name = "map"
    description = "Change case or replace literal text in every line"
    plugin_version = "1.0.0"
    source = MAP_SOURCE

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, MapParams)
        if params.operation == "change_case":
            translate = (
                ("'[:lower:]'", "'[:upper:]'")
                if params.case == "upper"
                else ("'[:upper:]'", "'[:lower:]'")
            )
            return {"translate": translate, "expression": ""}
        if not params.find:
            return {"translate": None, "expression": ""}
        expression = f"s/{sed_pattern(params.find)}/{sed_replacement(params.replace)}/g"
        return {"translate": None, "expression": expression}


class MergeOperator(StageTemplate):
    """Concatenate every upstream file into one."""

    name = "merge"
    description = "Join all upstream files, optionally validating FASTQ structure"
    plugin_version = "1.0.0"
    source = MERGE_SOURCE
    collects_input = True

    def context(self, request: RenderRequest) -> dict[str, Any]:
        params = request.node.params
        assert isinstance(params, MergeParams)
        fastq = params.output_type == "fastq"
        extension = re.sub(r"[^\w]", "", params.extension) or "txt"
        return {
            "fastq": fastq,
            "merged_name": "merged.fastq" if fastq else f"merged.{extension}",
            "separator": params.separator,
        }
