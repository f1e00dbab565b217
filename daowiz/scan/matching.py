"""Template predicate: does an on-chain footprint belong to a template?"""

from ..models.template import FactoryTemplate, Footprint, code_hash


def matches_template(template: FactoryTemplate, footprint: Footprint) -> bool:
    """
    Decide whether `footprint` is an instance of `template`.

    An address matches when it still holds code and either
    - its creation input is the template's init code followed by constructor
      arguments, or
    - its runtime code hashes to the template's runtime code hash.
    """
    if not footprint.runtime_code:
        return False

    if template.creation_bytecode and footprint.creation_input.startswith(
            template.creation_bytecode):
        return True

    if template.runtime_code_hash is not None:
        return code_hash(footprint.runtime_code) == template.runtime_code_hash

    return False
