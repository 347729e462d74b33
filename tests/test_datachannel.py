from sfucore.datachannel import Datachannel, DataChannelMessage, ProcessArgs, chain


def _recording(name, log):
    def middleware(next_processor):
        def process(args):
            log.append(name)
            next_processor(args)

        return process

    return middleware


def _args(data=b"hi"):
    return ProcessArgs(peer="peer-1", message=DataChannelMessage(data, True))


def test_chain_without_middlewares_returns_last():
    def last(args):
        return None

    assert chain([], last) is last


def test_chain_runs_in_declared_order():
    log = []
    handler = chain(
        [_recording("first", log), _recording("second", log)],
        lambda args: log.append("last"),
    )
    handler(_args())
    assert log == ["first", "second", "last"]


def test_datachannel_delivers_after_middlewares():
    log = []
    dc = Datachannel("chat")
    dc.use(_recording("m1", log), _recording("m2", log))
    received = []
    dc.on_message(lambda args: received.append(args.message.data))
    dc.processor()(_args(b"payload"))
    assert log == ["m1", "m2"]
    assert received == [b"payload"]


def test_middleware_can_stop_delivery():
    dc = Datachannel("chat")
    dc.use(lambda nxt: (lambda args: None))
    received = []
    dc.on_message(received.append)
    dc.processor()(_args())
    assert received == []


def test_processor_without_callback_still_runs_middlewares():
    log = []
    dc = Datachannel("chat")
    dc.use(_recording("only", log))
    dc.processor()(_args())
    assert log == ["only"]


def test_use_accumulates_middlewares():
    dc = Datachannel("chat")
    first, second = _recording("a", []), _recording("b", [])
    dc.use(first)
    dc.use(second)
    assert dc.middlewares == [first, second]