"""
Decorator to deal with the very annoying ComponentResource boilerplate.
"""
import pulumi

__all__ = 'component',


def component(namespace=None, outputs=()):
    """
    Makes the given callable a component, with much less boilerplate.

    If no namespace is given, uses the module and function names. Only the
    names listed in outputs are registered and set on the component.

    @component(outputs=['thing'])
    def MyResource(self, name, ..., opts):
        ...
        return {'thing': ...}
    """
    def _(func):
        nonlocal namespace
        if namespace is None:
            namespace = f"{func.__module__.replace('.', ':')}:{func.__name__}"

        def __init__(self, __name__, *pargs, opts=None, **kwargs):
            super(klass, self).__init__(namespace, __name__, None, opts)
            outs = func(self, __name__, *pargs, opts=opts, **kwargs) or {}
            outs = {k: v for k, v in outs.items() if k in outputs}
            self.register_outputs(outs)
            vars(self).update(outs)

        klass = type(func.__name__, (pulumi.ComponentResource,), {
            '__init__': __init__,
            '__doc__': func.__doc__,
            '__module__': func.__module__,
            '__qualname__': func.__qualname__,
        })
        return klass

    return _
