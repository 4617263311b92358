class ComfyGraphError(Exception):
    """Base class for every error raised by comfygraph."""


class NodeIdentityError(ComfyGraphError, ValueError):
    """A node has no id yet, or already has one and is inserted again."""


class DuplicateNodeIdError(ComfyGraphError, ValueError):
    def __init__(self, node_id: str):
        super().__init__(f"Node id '{node_id}' is already used in this graph")
        self.node_id = node_id


class SchemaError(ComfyGraphError, ValueError):
    """The object info response does not follow the server contract."""


class WorkflowError(ComfyGraphError, ValueError):
    """A workflow document cannot be converted into a graph."""


class MissingWidgetValueError(WorkflowError):
    def __init__(self, node_id, node_type: str, input_name: str):
        super().__init__(f'No widget value available for input "{input_name}" of {node_type} node {node_id}')
        self.node_id = node_id
        self.node_type = node_type
        self.input_name = input_name


class MissingLinkNodeError(WorkflowError, LookupError):
    def __init__(self, role: str, node_id, link_id):
        super().__init__(f"No {role} node found for id {node_id} of link {link_id}")
        self.role = role
        self.node_id = node_id
        self.link_id = link_id


class MissingInputSlotError(WorkflowError, LookupError):
    def __init__(self, slot: int, node_id, link_id):
        super().__init__(f"No target node input {slot} name found for id {node_id} of link {link_id}")
        self.slot = slot
        self.node_id = node_id
        self.link_id = link_id


class ComfyApiError(ComfyGraphError, RuntimeError):
    """The server refused a request or reported an execution error."""


class DocumentError(ComfyGraphError, ValueError):
    """A JSON or YAML document cannot be read or parsed."""


class PromptError(ComfyGraphError, ValueError):
    """An API prompt document does not have the `{id: {class_type, inputs}}` shape."""


class GraphCycleError(ComfyGraphError, ValueError):
    """The graph has a cycle, so no execution order exists."""
