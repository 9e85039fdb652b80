"""Sample function handlers used across tests."""


def hello(event, context):
    return {"message": "hello"}


def goodbye(event, context):
    return {"message": "goodbye"}


def on_stack_event(event, context):
    return {"Status": "SUCCESS"}


def no_args():
    return None


class Handler:
    def __call__(self, event, context):
        return event
